class ResultsIngestionError(Exception):
    """Root of every error raised by the results pipeline."""


class ConfigurationError(ResultsIngestionError):
    """
    Missing or invalid setup (env vars, unknown profile).
    Fatal at startup. Never raised per hall ticket.
    """


class InvalidHallTicket(ResultsIngestionError, ValueError):
    """The identifier does not match any known format grammar. It is never sent to the portal."""


class FetchFailed(ResultsIngestionError):
    """
    Transport failure (connection refused, DNS, timeout).
    The hall ticket's status is UNKNOWN and must be retried later,
    never treated as 'no such student'.
    """

    def __init__(self, hall_ticket: str, reason: str):
        self.hall_ticket = hall_ticket
        self.reason = reason
        super().__init__(f"Fetch failed for {hall_ticket}: {reason}")


class ParseIncomplete(ResultsIngestionError):
    """
    The portal answered with a result page but required fields are missing.
    Treated as NotFound by policy, counted separately so parser drift stays visible.
    """

    def __init__(self, hall_ticket: str, missing: str):
        self.hall_ticket = hall_ticket
        self.missing = missing
        super().__init__(f"Incomplete result page for {hall_ticket}: missing {missing}")


class PersistenceError(ResultsIngestionError):
    """The save transaction failed and was rolled back."""


class StoreUnavailable(PersistenceError):
    """The database cannot be reached at all. Systemic: aborts the whole chunk."""


class ResultsTemporarilyUnavailable(ResultsIngestionError):
    """Lookup could not reach the portal for a live fetch. Distinct from 'not found'."""


class BatchDispatchFailed(ResultsIngestionError):
    """
    The queue refused a chunk mid-dispatch. The batch row exists and is
    marked DISPATCH_FAILED, so the caller can still track it by id.
    """

    def __init__(self, batch_id, reason: str):
        self.batch_id = batch_id
        self.reason = reason
        super().__init__(f"Batch {batch_id} could not be fully dispatched: {reason}")
