"""Build orchestration for the libcudaimg CUDA image-processing library."""

__version__ = "0.1.0"
