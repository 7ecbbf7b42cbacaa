"""
Process Termination - force-stop a blocked AI tool process
"""

import logging

import psutil

logger = logging.getLogger(__name__)

GRACEFUL_WAIT_SECONDS = 3


def terminate_process(pid: int) -> bool:
    """
    Terminate a process, escalating to kill if it ignores the request.

    Returns:
        bool: True if the process was stopped, False otherwise
    """
    try:
        proc = psutil.Process(pid)
        proc.terminate()
        try:
            proc.wait(timeout=GRACEFUL_WAIT_SECONDS)
        except psutil.TimeoutExpired:
            proc.kill()
            proc.wait(timeout=GRACEFUL_WAIT_SECONDS)
        return True

    except psutil.NoSuchProcess:
        logger.warning("Process %s already exited", pid)
        return False
    except psutil.AccessDenied:
        logger.error("Access denied terminating process %s", pid)
        return False
    except Exception as e:
        logger.error("Failed to terminate process %s: %s", pid, e)
        return False
