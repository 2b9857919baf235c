class lrudict(dict):
    """
    dict which evicts the least recently used key once it holds `maxsize`
    items. lookups refresh a key.
    """

    def __init__(self, maxsize, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.maxsize = maxsize

    def __getitem__(self, k):
        val = super().__getitem__(k)
        del self[k]  # move to the back of the queue
        super().__setitem__(k, val)
        return val

    def __setitem__(self, k, val):
        if k not in self and len(self) >= self.maxsize:
            del self[next(iter(self))]
        super().__setitem__(k, val)

    def get(self, k, default=None):
        try:
            return self[k]
        except KeyError:
            return default

    # set based on a lambda, only evaluated on a miss
    def get_or_set(self, k, fn):
        try:
            return self[k]
        except KeyError:
            self[k] = (ret := fn(k))
            return ret
