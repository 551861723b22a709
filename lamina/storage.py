# Copyright (c) Facebook, Inc. and its affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.
from dataclasses import dataclass
import logging
from typing import Any, Optional, Protocol, Tuple

import torch

from .config import *
from .errors import *

#
# storage
#
# Raw buffers are flat 1-d torch tensors. An Address names one element
# of one buffer: it plays the part of a raw pointer, and can hand out a
# strided torch view over a run of elements starting at it.
#

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Address:
    buffer: torch.Tensor
    offset: int

    def get(self) -> Any:
        return self.buffer[self.offset].item()

    def set(self, value: Any):
        self.buffer[self.offset] = value

    def __add__(self, n: int) -> "Address":
        return Address(self.buffer, self.offset + n)

    # zero-copy view of count elements spaced stride apart. note that
    # as_strided takes an absolute storage offset, so buffers that are
    # themselves views (e.g. slices advanced to a cut point) need their
    # own storage offset folded in.
    def run(self, stride: int, count: int) -> torch.Tensor:
        base = self.buffer.storage_offset() + self.offset
        return self.buffer.as_strided((count,), (stride,), base)

    def __eq__(self, other) -> bool:
        return (
            isinstance(other, Address)
            and self.buffer is other.buffer
            and self.offset == other.offset
        )

    def __repr__(self) -> str:
        return f"Address(buffer@{id(self.buffer):#x}, offset={self.offset})"


class Allocator(Protocol):
    def allocate(self, n: int) -> torch.Tensor:
        ...

    def deallocate(self, buffer: torch.Tensor, n: int):
        ...

    def construct(self, address: Address, value: Any, count: int = 1):
        ...

    def destroy(self, address: Address, count: int = 1):
        ...


#
# default allocator: plain torch allocations on a configured device.
# torch reclaims storage when the last reference goes away, so
# deallocate() and destroy() have nothing to free - they exist so
# arena or pooling allocators can hook buffer lifetimes.
#
class TorchAllocator:
    def __init__(
        self,
        dtype: Optional[torch.dtype] = None,
        device: Optional[torch.device] = None,
    ):
        self.dtype = default_dtype() if dtype is None else parse_dtype(dtype)
        self.device = default_device() if device is None else torch.device(device)

    def allocate(self, n: int) -> torch.Tensor:
        logger.debug("allocate %d x %s on %s", n, self.dtype, self.device)
        return torch.empty(n, dtype=self.dtype, device=self.device)

    def deallocate(self, buffer: torch.Tensor, n: int):
        logger.debug("deallocate %d x %s", n, buffer.dtype)

    def construct(self, address: Address, value: Any, count: int = 1):
        address.buffer[address.offset : address.offset + count].fill_(value)

    def destroy(self, address: Address, count: int = 1):
        pass

    def __eq__(self, other) -> bool:
        return (
            isinstance(other, TorchAllocator)
            and self.dtype == other.dtype
            and self.device == other.device
        )

    def __repr__(self) -> str:
        return f"TorchAllocator(dtype={self.dtype}, device={self.device})"


# element type of buffers an allocator hands out. dtype and device aren't
# part of the Allocator protocol: allocators that don't say get the
# configured defaults.
def element_type_of(allocator) -> Tuple[torch.dtype, torch.device]:
    dtype = getattr(allocator, "dtype", None)
    device = getattr(allocator, "device", None)
    return (
        default_dtype() if dtype is None else parse_dtype(dtype),
        default_device() if device is None else torch.device(device),
    )
