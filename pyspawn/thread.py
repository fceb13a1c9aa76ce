__all__ = 'Thread',

import threading


class Thread(threading.Thread):
    """thread with a return value, which re-raises the target's exception on join

    >>> Thread(lambda: 1 + 2).start().join()
    3
    >>> Thread(lambda: 1 / 0).start().join()
    Traceback (most recent call last):
        ...
    ZeroDivisionError: division by zero
    >>> t = Thread(lambda: None, name='reaper', daemon=True).start(); t.join(); t.daemon
    True
    """
    def __init__(self, target, name=None, daemon=False):
        """initilialize the thread

        target: callable which takes no arguments
        """
        self.result = None
        self.error = None

        def closure():
            try:
                self.result = target()
            except BaseException as e:
                self.error = e

        super().__init__(target=closure, name=name or Thread.get_name(target), daemon=daemon)

    def start(self):
        super().start()
        return self

    def join(self, timeout=None):
        super().join(timeout)
        if self.error is not None:
            raise self.error
        return self.result

    @staticmethod
    def get_name(func):
        """give a decent name to the thread"""
        if hasattr(func, 'func') and func.func is not func:
            return Thread.get_name(func.func)
        return repr(func)
