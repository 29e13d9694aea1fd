from .exceptions import InvalidTransition, DocumentLocked


class StateMachine:
    """Transition table for one document type.

    ``transitions`` maps a status to the set of statuses it may move to.
    ``locked`` lists statuses in which the document's content (line items,
    totals, delivery details) is frozen.
    """

    def __init__(self, name, transitions, locked=()):
        self.name = name
        self.transitions = {state: frozenset(targets) for state, targets in transitions.items()}
        self.locked = frozenset(locked)

    def allowed(self, from_status):
        return self.transitions.get(from_status, frozenset())

    def can(self, from_status, to_status):
        return to_status in self.allowed(from_status)

    def check(self, from_status, to_status):
        if not self.can(from_status, to_status):
            raise InvalidTransition(from_status, to_status)

    def is_locked(self, status):
        return status in self.locked

    def check_editable(self, status):
        if self.is_locked(status):
            raise DocumentLocked(f'{self.name} is {status} and can no longer be changed.', status=status)
