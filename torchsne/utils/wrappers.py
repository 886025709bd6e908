"""Useful wrappers for dealing with backends and devices."""

# Author: Hugues Van Assel <vanasselhugues@gmail.com>
#
# License: BSD 3-Clause License

import functools
import torch

from .validation import check_array


def output_contiguous(func):
    """Convert all output torch tensors to contiguous."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        output = func(*args, **kwargs)
        if isinstance(output, tuple):
            output = tuple(
                out.contiguous() if isinstance(out, torch.Tensor) else out
                for out in output
            )
        elif isinstance(output, torch.Tensor):
            output = output.contiguous()
        return output

    return wrapper


@output_contiguous
def to_torch(x, device="auto", return_backend_device=False, **check_array_kwargs):
    """Convert input to torch tensor and specified device while performing some checks.

    If device="auto", the device is set to the device of the input x.
    """
    if isinstance(x, torch.Tensor):
        input_backend = "torch"
        input_device = x.device
    else:
        input_backend = "numpy"
        input_device = "cpu"

    if device == "auto" or device is None:
        target_device = input_device
    else:
        target_device = device

    x_ = check_array(x, device=target_device, **check_array_kwargs)

    if torch.is_complex(x_):
        raise ValueError("[TorchSNE] ERROR : complex tensors are not supported.")
    if not torch.isfinite(x_).all():
        raise ValueError("[TorchSNE] ERROR : input contains infinite values.")

    if not x_.dtype.is_floating_point:
        x_ = x_.float()

    if return_backend_device:
        return x_, input_backend, input_device
    else:
        return x_


def torch_to_backend(x, backend="torch", device="cpu"):
    """Convert a torch tensor to specified backend and device."""
    if not isinstance(x, torch.Tensor):
        return x

    if backend == "numpy":
        return x.detach().cpu().numpy()
    else:
        return x.to(device=device)


def handle_type(_func=None, *, set_device=True, **check_array_kwargs):
    """Convert input to torch and optionally set device specified by self.

    Then convert the output to the input backend and device.

    Parameters
    ----------
    _func : callable, optional
        The function to be wrapped.
    set_device : bool, default=True
        If True, set the device to self.device if it is not None.
    **check_array_kwargs : dict
        Keyword arguments to be passed to the check_array function.
    """

    def decorator_handle_type(func):
        @functools.wraps(func)
        def wrapper(self, X, *args, **kwargs):
            device = self.device if set_device else "auto"
            X_, input_backend, input_device = to_torch(
                X,
                device=device,
                return_backend_device=True,
                **check_array_kwargs,
            )
            output = func(self, X_, *args, **kwargs)
            return torch_to_backend(output, backend=input_backend, device=input_device)

        return wrapper

    # Support both @handle_type and @handle_type(...)
    if _func is None:
        return decorator_handle_type
    else:
        return decorator_handle_type(_func)
