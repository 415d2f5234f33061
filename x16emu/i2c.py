"""Bit-banged I2C bus, input ring buffers and a PS/2-style mouse."""

from typing import Mapping, Optional, Protocol

SMC_ADDRESS = 0x42
RTC_ADDRESS = 0x6F

_STATE_START = 0
_STATE_STOP = -1


class I2CDevice(Protocol):
    """A register-addressed device attached to the bus."""

    def read(self, offset: int) -> int: ...

    def write(self, offset: int, value: int) -> None: ...


class RingBuffer:
    """Fixed-size byte ring buffer; holds at most ``size - 1`` values."""

    def __init__(self, size: int = 16) -> None:
        if size < 2 or size & (size - 1):
            raise ValueError(f"size must be a power of two of at least 2: {size}")
        self.size = size
        self._data = [0] * size
        self._head = 0
        self._tail = 0

    def __len__(self) -> int:
        return (self.size + self._head - self._tail) & (self.size - 1)

    def add(self, value: int) -> bool:
        """Append a byte; return False if the buffer was full and it was dropped."""
        following = (self._head + 1) & (self.size - 1)
        if following == self._tail:
            return False
        self._data[self._head] = value & 0xFF
        self._head = following
        return True

    def next(self) -> int:
        """Remove and return the oldest byte, or 0 if the buffer is empty."""
        if self._head == self._tail:
            return 0
        value = self._data[self._tail]
        self._tail = (self._tail + 1) & (self.size - 1)
        return value

    def flush(self) -> None:
        """Discard everything in the buffer."""
        self._head = 0
        self._tail = 0


class I2CBus:
    """I2C target side, clocked by the levels of SCL and SDA.

    ``devices`` maps 7-bit device addresses to devices; other addresses are
    not acknowledged and read as 0xFF.
    """

    def __init__(self, devices: Optional[Mapping[int, I2CDevice]] = None) -> None:
        self.devices = dict(devices or {})
        self.data_out = 0
        self._old_clk = 0
        self._old_data = 0
        self._device = 0
        self._offset = 0
        self.reset()

    def reset(self) -> None:
        """Return the bus to its idle, stopped state."""
        self._state = _STATE_STOP
        self._read_mode = False
        self._value = 0
        self._count = 0

    def read(self, device: int, offset: int) -> int:
        """Read a register from a device, or 0xFF if there is no such device."""
        target = self.devices.get(device)
        if target is None:
            return 0xFF
        return target.read(offset) & 0xFF

    def write(self, device: int, offset: int, value: int) -> None:
        """Write a register of a device; writes to absent devices are ignored."""
        target = self.devices.get(device)
        if target is not None:
            target.write(offset, value)

    def step(self, clk: int, data: int) -> int:
        """Apply new SCL and SDA levels and return the level the bus drives on SDA."""
        clk = 1 if clk else 0
        data = 1 if data else 0
        if clk == self._old_clk and data == self._old_data:
            return self.data_out

        if self._state == _STATE_STOP and clk == 0 and data == 0:
            self._state = _STATE_START

        if self._state == 1 and clk == 1 and data == 1 and self._old_data == 0:
            self._state = _STATE_STOP
            self._count = 0
            self._read_mode = False

        if self._state != _STATE_STOP and clk == 1 and self._old_clk == 0:
            self._clock_edge(data)

        self._old_clk = clk
        self._old_data = data
        return self.data_out

    def _clock_edge(self, data: int) -> None:
        self.data_out = 1
        if self._state < 8:
            if self._read_mode:
                if self._state == 0:
                    self._value = self.read(self._device, self._offset)
                self.data_out = 1 if self._value & 0x80 else 0
                self._value = (self._value << 1) & 0xFF
            else:
                self._value = ((self._value << 1) | data) & 0xFF
            self._state += 1
            return

        if self._read_mode:
            if data:
                # NACK from the controller ends the read.
                self._count = 0
                self._read_mode = False
        else:
            ack = True
            if self._count == 0:
                self._device = self._value >> 1
                self._read_mode = bool(self._value & 1)
                if self._device not in self.devices:
                    ack = False
            elif self._count == 1:
                self._offset = self._value
            else:
                self.write(self._device, self._offset, self._value)
                self._offset = (self._offset + 1) & 0xFF
            if ack:
                self.data_out = 0
                self._count += 1
            else:
                self._count = 0
                self._read_mode = False
        self._state = _STATE_START


def _int16(value: int) -> int:
    value &= 0xFFFF
    return value - 0x10000 if value & 0x8000 else value


class Mouse:
    """A PS/2-style mouse that queues movement packets into a ring buffer.

    Device id 3 (wheel mouse) sends four-byte packets, id 0 three-byte ones.
    """

    def __init__(self, buffer: Optional[RingBuffer] = None) -> None:
        self.buffer = buffer if buffer is not None else RingBuffer()
        self.buttons = 0
        self._diff_x = 0
        self._diff_y = 0
        self._wheel = 0
        self._device_id = 3

    @property
    def device_id(self) -> int:
        """The PS/2 device id the mouse reports."""
        return self._device_id

    def _has_wheel(self) -> bool:
        return self._device_id in (3, 4)

    def button_down(self, num: int) -> None:
        """Press button ``num`` (0 left, 1 right, 2 middle)."""
        self.buttons = (self.buttons | (1 << num)) & 0xFF

    def button_up(self, num: int) -> None:
        """Release button ``num``."""
        self.buttons &= (1 << num) ^ 0xFF

    def move(self, x: int, y: int) -> None:
        """Accumulate movement; positive ``y`` is downwards on screen."""
        self._diff_x = _int16(self._diff_x + x)
        self._diff_y = _int16(self._diff_y - y)

    def set_wheel(self, y: int) -> None:
        """Record a wheel movement, clamped to the packet's range."""
        if not self._has_wheel():
            return
        if y < -7:
            self._wheel = 7
        elif y > 8:
            self._wheel = -8
        else:
            self._wheel = -y

    def set_device_id(self, device_id: int) -> None:
        """Select the device id; unsupported ids fall back to 0. Flushes the buffer."""
        if device_id in (0, 3):
            self._device_id = device_id
        elif device_id == 4:
            self._device_id = 3
        else:
            self._device_id = 0
        self.buffer.flush()

    def _send(self, x: int, y: int) -> bool:
        packet_size = 4 if self._has_wheel() else 3
        if len(self.buffer) >= self.buffer.size - packet_size:
            return False
        header = (((y >> 9) & 1) << 5) | (((x >> 9) & 1) << 4) | (1 << 3) | self.buttons
        self.buffer.add(header)
        self.buffer.add(x)
        self.buffer.add(y)
        if packet_size == 4:
            self.buffer.add(self._wheel)
        return True

    def send_state(self) -> None:
        """Queue packets for the accumulated movement, buttons and wheel."""
        while True:
            send_x = max(-256, min(255, self._diff_x))
            send_y = max(-256, min(255, self._diff_y))
            self._send(send_x, send_y)
            self._diff_x = _int16(self._diff_x - send_x)
            self._diff_y = _int16(self._diff_y - send_y)
            self._wheel = 0
            if not (self._diff_x != 0 and self._diff_y != 0):
                break