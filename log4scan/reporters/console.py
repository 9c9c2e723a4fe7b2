import sys
import threading
from datetime import datetime

from colorama import init as colorama_init, Fore, Style

colorama_init()

QUIET = 0
DEFAULT = 1
VERBOSE = 2


class Log:
    def __init__(self, verbose: int = DEFAULT, no_color: bool = False, stream=None):
        self.verbose = verbose
        self.no_color = no_color
        self.stream = stream or sys.stdout
        self.PAY = "" if no_color else Fore.MAGENTA
        self.RESET = "" if no_color else Style.RESET_ALL
        self._lock = threading.Lock()

    def _time(self):
        return datetime.now().strftime("[%H:%M:%S]")

    def _c(self, color: str) -> str:
        return "" if self.no_color else color

    def _fmt(self, level: str, color: str):
        return f"{self._time()} {self._c(color)}[{level}]{self._c(Style.RESET_ALL)}"

    def _write(self, line: str):
        with self._lock:
            print(line, file=self.stream, flush=True)

    def info(self, msg: str):
        if self.verbose >= DEFAULT:
            self._write(f"{self._fmt('INFO', Fore.CYAN)} {msg}")

    def warn(self, msg: str):
        if self.verbose >= QUIET:
            self._write(f"{self._fmt('WARNING', Fore.YELLOW)} {msg}")

    def ok(self, msg: str):
        self._write(f"{self._fmt('SUCCESS', Fore.GREEN)} {msg}")

    def fail(self, msg: str):
        self._write(f"{self._fmt('FAIL', Fore.RED)} {msg}")

    def debug(self, msg: str):
        if self.verbose >= VERBOSE:
            self._write(f"{self._fmt('DEBUG', Fore.MAGENTA)} {msg}")

    def finding(self, target: str, point, payload: str, marker: str, kind: str,
                remote: str = ""):
        src = f" from {remote}" if remote else ""
        self._write(f"{self._fmt('CRITICAL', Fore.RED)} Log4Shell confirmed on {target} "
                    f"{point} = {self.PAY}{payload}{self._c(Style.RESET_ALL)} "
                    f"{self._c(Style.DIM)}({kind} callback {marker}{src}){self._c(Style.RESET_ALL)}")

    def unconfirmed(self, target: str, point, payload: str, status_code):
        if self.verbose >= VERBOSE:
            code = f"HTTP {status_code}" if status_code is not None else "no response"
            self._write(f"{self._fmt('UNCONFIRMED', Fore.YELLOW)} {target} {point} = "
                        f"{self.PAY}{payload}{self._c(Style.RESET_ALL)} "
                        f"{self._c(Style.DIM)}({code}){self._c(Style.RESET_ALL)}")
