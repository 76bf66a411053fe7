"""
Configuration constants for the matrixframes array container.
All tunable defaults and thresholds are centralized here.
"""

import os

# ==========================================
# Axis Defaults
# ==========================================
DEFAULT_AXIS_NAME = "Series"
DEFAULT_FRAME_AXIS_NAME = "Frame"
DEFAULT_TAG_AXIS_NAME = "Tag"
DEFAULT_CHANNEL_AXIS_NAME = "Channel"
DEFAULT_CHANNEL_TAG_FORMAT = "Ch{}"
DEFAULT_FOV_AXIS_NAME = "FOV"
TILE_OVERLAP_TOLERANCE = 1e-3  # pixels; overlaps further from an integer are sub-pixel

# ==========================================
# Parallel Execution
# ==========================================

# Worker threads for data-parallel fan-out (restack, reduce, for_each)
PARALLEL_MAX_WORKERS = min(8, os.cpu_count() or 1)

# Below this many work items a parallel call runs inline on the caller thread
PARALLEL_MIN_ITEMS_PER_TASK = 4

# Number of new-depth planes copied per task during restack
RESTACK_BLOCK_SIZE = 16

# Scratch buffers kept per pool (one per worker is enough)
SCRATCH_POOL_MAX_BUFFERS = PARALLEL_MAX_WORKERS * 2

# ==========================================
# Statistics
# ==========================================

# Value-mode labels for complex frames, in finder order
COMPLEX_VALUE_MODES = ("magnitude", "real", "imaginary", "phase", "power")

# ==========================================
# Disk Cache
# ==========================================
CACHE_PREFIX = "matrixframes"
CACHE_DIR = None                  # None -> tempfile.gettempdir()

# ==========================================
# CLI Defaults
# ==========================================
CLI_DEFAULT_X = 64
CLI_DEFAULT_Y = 64
CLI_DEFAULT_LOG_LEVEL = "WARNING"
