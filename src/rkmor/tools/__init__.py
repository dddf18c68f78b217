# This file is part of the rkMOR project.
# Copyright rkMOR developers and contributors. All rights reserved.
# License: BSD 2-Clause License (https://opensource.org/licenses/BSD-2-Clause)

"""rkmor.tools collects modules used throughout rkMOR
that do not depend on any of rkMOR's abstraction objects.
"""
