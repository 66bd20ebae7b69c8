"""
Application constants and metadata.
"""

# Application info
APP_NAME = "NVIDIA GPU Exporter"
APP_VERSION = "0.1.0"
APP_URL = "https://github.com/mindprince/nvidia_gpu_prometheus_exporter"

# Metric namespace (prefix of every exported metric name)
NAMESPACE = "nvidia_gpu"

# Label set shared by all per-device metrics
DEVICE_LABELS = ("minor_number", "uuid", "name")

# Default values
DEFAULT_PORT = 9445
DEFAULT_LISTEN_ADDRESS = f":{DEFAULT_PORT}"
DEFAULT_AVERAGE_WINDOW = 10.0

# Environment variable prefix for configuration overrides
ENV_PREFIX = "NVIDIA_GPU_EXPORTER_"
