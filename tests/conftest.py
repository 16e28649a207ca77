import itertools
import os

import pytest

from regit import base, data, types

AUTHOR = ('Ada Lovelace', 'ada@example.com')
COMMITTER = ('Charles Babbage', 'charles@example.com')


@pytest.fixture
def repo(tmp_path, monkeypatch):
    """An initialized, empty repository that is also the working directory."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv('REGIT_AUTHOR_NAME', AUTHOR[0])
    monkeypatch.setenv('REGIT_AUTHOR_EMAIL', AUTHOR[1])
    monkeypatch.setenv('REGIT_COMMITTER_NAME', COMMITTER[0])
    monkeypatch.setenv('REGIT_COMMITTER_EMAIL', COMMITTER[1])
    monkeypatch.setenv('REGIT_TZ', '+0200')
    with data.change_git_dir(str(tmp_path)):
        base.init()
        yield tmp_path


@pytest.fixture
def make_commit(repo, monkeypatch):
    counter = itertools.count(1)

    def make_commit(message, files=None):
        n = next(counter)
        files = files or {f'file{n}.txt': f'content {n}\n'}
        for path, content in files.items():
            os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
            with open(path, 'w') as f:
                f.write(content)
        base.add(list(files))
        monkeypatch.setenv('REGIT_AUTHOR_DATE', str(1_600_000_000 + n * 60))
        return base.commit(message)

    return make_commit


@pytest.fixture
def identity():
    def identity(timestamp=1_600_000_000):
        return types.Identity(name=AUTHOR[0], email=AUTHOR[1], timestamp=timestamp)

    return identity


@pytest.fixture
def reachable(repo):
    """Commits reachable from any ref."""
    def reachable():
        tips = {ref.value for _, ref in data.iter_refs()}
        return set(base.iter_commits_and_parents(tips))

    return reachable
