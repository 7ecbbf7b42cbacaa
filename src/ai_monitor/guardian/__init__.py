# Guardian Module - AI Tool Detection
#
# Guardian watches the local machine for interactive AI tools: it lists
# windowed processes and recognizes known tools from their process name
# and window title.

from .process_detection import ProcessDetector, query_windowed_processes
from .signatures import DEFAULT_SIGNATURES, SignatureCatalog

__all__ = [
    "ProcessDetector",
    "query_windowed_processes",
    "DEFAULT_SIGNATURES",
    "SignatureCatalog",
]
