# -*- coding: utf-8 -*-
"""Optimizers for neighbor embedding problems."""

# Author: Hugues Van Assel <vanasselhugues@gmail.com>
#         Rémi Flamary <remi.flamary@polytechnique.edu>
#
# License: BSD 3-Clause License

import torch
from torch.optim import Optimizer


class GainsMomentumSGD(Optimizer):
    r"""Gradient descent with momentum and per-coordinate adaptive gains.

    This is the update rule of van der Maaten's t-SNE (delta-bar-delta
    gains, Jacobs 1988). For each coordinate, the gain is
    increased by ``gain_increment`` when the sign of the gradient differs from
    the sign of the current velocity, and multiplied by ``gain_decay``
    otherwise. Gains are floored at ``min_gain``. Then

    .. math::

        \mathbf{u} \leftarrow \mu \mathbf{u} - \eta \: \mathbf{g} \odot \nabla

        \mathbf{Y} \leftarrow \mathbf{Y} + \mathbf{u}

    Parameters
    ----------
    params : iterable
        Parameters to optimize.
    lr : float, optional
        Learning rate :math:`\eta`, by default 200.
    momentum : float, optional
        Momentum :math:`\mu`, by default 0.5.
    min_gain : float, optional
        Lower bound on the gains, by default 0.01.
    gain_increment : float, optional
        Additive gain increase on sign change, by default 0.2.
    gain_decay : float, optional
        Multiplicative gain decrease otherwise, by default 0.8.
    """

    def __init__(
        self,
        params,
        lr: float = 200.0,
        momentum: float = 0.5,
        min_gain: float = 0.01,
        gain_increment: float = 0.2,
        gain_decay: float = 0.8,
    ):
        if lr <= 0:
            raise ValueError(f"[TorchSNE] ERROR : Invalid learning rate: {lr}.")
        if not 0.0 <= momentum < 1.0:
            raise ValueError(f"[TorchSNE] ERROR : Invalid momentum: {momentum}.")

        defaults = dict(
            lr=lr,
            momentum=momentum,
            min_gain=min_gain,
            gain_increment=gain_increment,
            gain_decay=gain_decay,
        )
        super().__init__(params, defaults)

    @torch.no_grad()
    def step(self, closure=None):
        loss = None
        if closure is not None:
            with torch.enable_grad():
                loss = closure()

        for group in self.param_groups:
            for p in group["params"]:
                if p.grad is None:
                    continue
                grad = p.grad
                state = self.state[p]
                if len(state) == 0:
                    state["velocity"] = torch.zeros_like(p)
                    state["gains"] = torch.ones_like(p)
                velocity, gains = state["velocity"], state["gains"]

                flipped = torch.sign(grad) != torch.sign(velocity)
                gains.copy_(
                    torch.where(
                        flipped,
                        gains + group["gain_increment"],
                        gains * group["gain_decay"],
                    )
                )
                gains.clamp_(min=group["min_gain"])

                velocity.mul_(group["momentum"]).addcmul_(
                    gains, grad, value=-group["lr"]
                )
                p.add_(velocity)

        return loss
