"""Network metrics collection, device-defender JSON reports, signature verification and platform helpers."""

__version__ = "0.1.0"
__all__ = ["crypto", "metrics", "platform", "report", "report_arrays"]