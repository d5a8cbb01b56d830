from statemachine import State, StateMachine


class CalleeLifecycle(StateMachine):
    """Callee session lifecycle.

    constructed -> awaiting_init -> active -> completed | cancelled | closed_by_host.
    A host close may also arrive while still awaiting init. Terminal states
    are final; any further event raises TransitionNotAllowed.
    """

    constructed = State("Constructed", value="constructed", initial=True)
    awaiting_init = State("AwaitingInit", value="awaiting_init")
    active = State("Active", value="active")
    completed = State("Completed", value="completed", final=True)
    cancelled = State("Cancelled", value="cancelled", final=True)
    closed_by_host = State("ClosedByHost", value="closed_by_host", final=True)

    listen = constructed.to(awaiting_init)
    accept_init = awaiting_init.to(active)
    refresh_init = active.to.itself()
    finish = active.to(completed)
    abort = active.to(cancelled)
    host_close = awaiting_init.to(closed_by_host) | active.to(closed_by_host)


AWAITING_INIT = CalleeLifecycle.awaiting_init.value
ACTIVE = CalleeLifecycle.active.value
