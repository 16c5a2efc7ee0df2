"""
Least-squares backends.

Only the FP64 CPU engine ships: model comparison needs fits that are
bit-for-bit reproducible, so there is no reduced-precision path.
"""

from typing import Union

from .base import BackendBase, LinearModelResult
from .cpu_fp64_backend import CPUBackendFP64

_BACKENDS = {
    'cpu': CPUBackendFP64,
}


def get_backend(backend: Union[str, BackendBase] = 'auto') -> BackendBase:
    """
    Resolve a backend name or instance.

    Parameters
    ----------
    backend : str or BackendBase
        'auto' or 'cpu', or an already constructed backend, which is
        returned unchanged

    Examples
    --------
    >>> get_backend('cpu').name
    'cpu_fp64'
    """
    if isinstance(backend, BackendBase):
        return backend
    if backend == 'auto':
        backend = 'cpu'
    if backend not in _BACKENDS:
        raise ValueError(
            f"Unknown backend: {backend!r}\n"
            f"Valid options: 'auto', {', '.join(repr(b) for b in _BACKENDS)}"
        )
    return _BACKENDS[backend]()


def list_available_backends() -> list:
    """Names accepted by get_backend() besides 'auto'."""
    return list(_BACKENDS)


__all__ = [
    'get_backend',
    'list_available_backends',
    'BackendBase',
    'LinearModelResult',
    'CPUBackendFP64',
]
