import pytest

from fakes import FakeClock


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_file(tmp_path):
    def _make(data, name="in.bin"):
        path = tmp_path / name
        path.write_bytes(data)
        return path
    return _make


@pytest.fixture
def track_open(monkeypatch):
    """Record every file an engine module opens."""
    def _track(module):
        opened = []
        real_open = open

        def spy(*args, **kwargs):
            f = real_open(*args, **kwargs)
            opened.append(f)
            return f

        monkeypatch.setattr(module, "open", spy, raising=False)
        return opened
    return _track
