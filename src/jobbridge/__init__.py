# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""jobbridge - run Python job scripts in isolated sessions against a small host API."""

__version__ = "0.3.1"
