import io

import pytest
from PIL import Image

from gifbudget.error_handler import EncoderError, EncoderInitError
from gifbudget.ffmpeg_utils import FFmpegResult


class FakeEncoder:
    """In-memory stand-in for FFmpegEncoder.

    Trial output sizes are looked up by profile index, parsed from the
    ``trial_<task>_<index>.gif`` / ``palette_<task>_<index>.png`` names.
    """

    def __init__(self, sizes=None, fail_indices=(), fail_load=False, **_kwargs):
        self.sizes = dict(sizes or {})
        self.fail_indices = set(fail_indices)
        self.fail_load = fail_load
        self.files = {}
        self.loaded = False
        self.calls = []
        self.deleted = []

    def load(self):
        if self.fail_load:
            raise EncoderInitError("ffmpeg missing")
        self.loaded = True

    def close(self):
        self.loaded = False

    def write_file(self, name, data):
        self.files[name] = bytes(data)

    def read_file(self, name):
        if name not in self.files:
            raise EncoderError(f"Artifact not found: {name}")
        return self.files[name]

    def delete_file(self, name):
        if name not in self.files:
            raise FileNotFoundError(name)
        del self.files[name]
        self.deleted.append(name)

    def exec(self, args, log=None):
        self.calls.append(list(args))
        output = args[-1]
        index = int(output.rsplit('_', 1)[1].split('.')[0])
        if index in self.fail_indices:
            return FFmpegResult(returncode=1, stderr='Conversion failed!')
        if output.startswith('palette_'):
            self.files[output] = b'PNG'
        else:
            self.files[output] = b'G' * self.sizes[index]
        return FFmpegResult(returncode=0)

    @property
    def trial_indices(self):
        return [int(call[-1].rsplit('_', 1)[1].split('.')[0])
                for call in self.calls if call[-1].startswith('trial_')]


@pytest.fixture
def make_encoder():
    return FakeEncoder


def _gif_bytes(size=(32, 16), frames=3, duration_ms=100):
    colors = ['red', 'green', 'blue', 'yellow', 'white', 'black']
    images = [Image.new('RGB', size, colors[i % len(colors)]) for i in range(frames)]
    buffer = io.BytesIO()
    images[0].save(buffer, format='GIF', save_all=True, append_images=images[1:],
                   duration=duration_ms, loop=0)
    return buffer.getvalue()


@pytest.fixture
def make_gif():
    return _gif_bytes
