from textual.message import Message

from db.models import CartState, Session


class QuitRequestedMessage(Message):
    """
    broadcasted when the app is about to quit
    """

    bubble = True


class UserLogoutMessage(Message):
    """
    posted by the sidebar once the user confirmed logging out
    """

    bubble = True


class SessionChangedMessage(Message):
    """
    Posted by the app to every screen whenever the SessionManager reports
    a change. Screens showing user info refresh on it.
    """

    bubble = False

    def __init__(self, session: Session) -> None:
        super().__init__()
        self.session = session


class CartChangedMessage(Message):
    """
    Posted by the app to every screen after every local cart change,
    optimistic or not. Carries the snapshot of the cart at that moment.
    """

    bubble = False

    def __init__(self, cart: CartState) -> None:
        super().__init__()
        self.cart = cart
