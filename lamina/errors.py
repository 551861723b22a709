# Copyright (c) Facebook, Inc. and its affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

#
# errors
#
# Contract violations are programming errors: they are raised
# immediately and never retried. PreconditionError subclasses
# ValueError so callers that already catch ValueError from shape
# validation keep working.
#


class PreconditionError(ValueError):
    """
    Raised when a caller breaks a contract of the core: rank or shape
    mismatch, comparing incompatible cursors, driving an exhausted
    processor.
    """


def ensure(cond: bool, msg: str):
    if not cond:
        raise PreconditionError(msg)
