# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
mqforward command line interface.
"""

from .. import __version__

__all__ = ["__version__"]
