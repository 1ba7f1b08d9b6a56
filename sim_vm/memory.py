PAGE_SIZE = 32
PAS_FRAMES = 256
PAS_SIZE = PAGE_SIZE * PAS_FRAMES

# frame numbers are stored in one byte inside a page table entry
MAX_FRAME_INDEX = 0xFF


class OutOfMemoryError(Exception):
    """Raised when every physical frame has already been handed out.

    When the failure interrupts a translation that had already created an L2
    table, ``translation`` holds that partial walk (``data_frame`` is None).
    """

    translation = None


class PhysicalMemory:
    """Flat physical address space carved into fixed-size frames.

    Frames are handed out from a counter that only moves forward; nothing is
    ever freed, so the frame returned by the n-th allocation is always n.
    """

    def __init__(self, total_frames=PAS_FRAMES, page_size=PAGE_SIZE):
        if total_frames <= 0 or total_frames > MAX_FRAME_INDEX + 1:
            raise ValueError(f"total_frames must be between 1 and {MAX_FRAME_INDEX + 1}")
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        self.total_frames = total_frames
        self.page_size = page_size
        self.data = bytearray(page_size * total_frames)
        self.next_frame = 0

    def allocate_frame(self):
        if self.next_frame >= self.total_frames:
            raise OutOfMemoryError(f"all {self.total_frames} frames are allocated")
        frame = self.next_frame
        self.next_frame += 1
        return frame

    def frame_range(self, frame):
        if frame < 0 or frame >= self.next_frame:
            raise IndexError(f"frame {frame} has not been allocated")
        start = frame * self.page_size
        return start, start + self.page_size

    def frame_view(self, frame):
        start, end = self.frame_range(frame)
        return memoryview(self.data)[start:end]

    @property
    def allocated_frames(self):
        return self.next_frame

    @property
    def free_frames(self):
        return self.total_frames - self.next_frame

    def get_memory_info(self):
        return {
            'page_size': self.page_size,
            'total': self.total_frames,
            'allocated': self.allocated_frames,
            'free': self.free_frames,
            'usage_percent': (self.allocated_frames / self.total_frames) * 100
        }
