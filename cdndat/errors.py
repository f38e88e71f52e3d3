class CdnDatError(Exception):
    pass


class TitleError(CdnDatError):
    # A single title can't be processed and is skipped

    def __init__(self, tid, reason):
        super().__init__('%s: %s' % (tid, reason))
        self.tid = tid
        self.reason = reason


class CheckpointError(CdnDatError):
    pass
