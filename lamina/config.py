# Copyright (c) Facebook, Inc. and its affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.
from typing import Any

import torch
from donfig import Config

config = Config(
    "lamina",
    defaults=[
        {
            "array": {"layout": "row_major", "dtype": "float32", "device": "cpu"},
        }
    ],
)

LAYOUT_NAMES = ("row_major", "column_major", "multislice")


def parse_layout_name(data: Any) -> str:
    if data in LAYOUT_NAMES:
        return data
    raise ValueError(f"expected one of {LAYOUT_NAMES}, got {data!r} instead")


def parse_dtype(data: Any) -> torch.dtype:
    if isinstance(data, torch.dtype):
        return data
    dtype = getattr(torch, str(data), None)
    if not isinstance(dtype, torch.dtype):
        raise ValueError(f"unknown torch dtype {data!r}")
    return dtype


def default_dtype() -> torch.dtype:
    return parse_dtype(config.get("array.dtype"))


def default_device() -> torch.device:
    return torch.device(config.get("array.device"))
