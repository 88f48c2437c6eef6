import pytest

try:
    from PyQt6.QtCore import QCoreApplication
except Exception:
    from PyQt5.QtCore import QCoreApplication


@pytest.fixture(scope="session", autouse=True)
def qapp():
    """ One core application for all QObjects, the event loop is never started """
    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([])
    yield app


class SignalRecorder:
    """ Collects the arguments of every emission of the connected signals """

    def __init__(self):
        self.calls = []

    def __call__(self, *args):
        self.calls.append(args)

    def __len__(self):
        return len(self.calls)

    @property
    def last(self):
        return self.calls[-1] if self.calls else None


@pytest.fixture
def recorder():
    return SignalRecorder
