# Works like the `open()` builtin: calling it swaps the value in right away
# and leaves it there. used as a context manager, the previous value is
# swapped back in at scope exit.
class Open:
    def __init__(self, get, set_, item):
        self.previous = get()
        self._set = set_
        self._set(item)

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self._set(self.previous)
