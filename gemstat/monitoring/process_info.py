# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
import logging
from typing import Optional, Protocol

import psutil

from gemstat.monitoring.utils.error import log_error

logger = logging.getLogger(__name__)


class ProcessInfoClient(Protocol):
    """Best-effort lookup of process metadata. Processes may exit at any time, so
    every lookup may come back empty.
    """

    def get_name(self, pid: int) -> Optional[str]:
        """Get the process name. This is /proc/<pid>/comm, or the longer name from
        the command line when comm is truncated.
        """

    def get_exe(self, pid: int) -> Optional[str]:
        """Get the executable path, i.e. the target of /proc/<pid>/exe"""


class PsutilProcessInfoClient(ProcessInfoClient):
    @log_error(__name__)
    def get_name(self, pid: int) -> Optional[str]:
        try:
            return psutil.Process(pid).name()
        except (psutil.NoSuchProcess, psutil.AccessDenied) as e:
            logger.debug(f"Could not get name of pid {pid}: {e}")
            return None

    @log_error(__name__)
    def get_exe(self, pid: int) -> Optional[str]:
        try:
            return psutil.Process(pid).exe()
        except (psutil.NoSuchProcess, psutil.AccessDenied) as e:
            logger.debug(f"Could not get executable of pid {pid}: {e}")
            return None
