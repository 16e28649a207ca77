import os

import pytest

from regit import base, data, types


def test_hash_object_is_deterministic(repo):
    first = data.hash_object(b'hello', 'blob')
    second = data.hash_object(b'hello', 'blob')
    assert first == second
    assert data.get_object(first) == b'hello'


def test_same_bytes_of_different_type_get_different_ids(repo):
    assert data.hash_object(b'x', 'blob') != data.hash_object(b'x', 'tree')


def test_is_repository(repo, tmp_path_factory):
    assert data.is_repository()
    with data.change_git_dir(str(tmp_path_factory.mktemp('empty'))):
        assert not data.is_repository()


def test_change_git_dir_restores_previous_dir(repo, tmp_path_factory):
    before = data.GIT_DIR
    other = tmp_path_factory.mktemp('other')
    with pytest.raises(KeyError):
        with data.change_git_dir(str(other)):
            raise KeyError
    assert data.GIT_DIR == before


def test_force_update_ref_creates_and_moves_ref(repo):
    a = data.hash_object(b'a', 'blob')
    b = data.hash_object(b'b', 'blob')
    assert data.force_update_ref('refs/heads/topic', a) is types.RefUpdateResult.NEW
    assert data.force_update_ref('refs/heads/topic', a) is types.RefUpdateResult.NO_CHANGE
    assert data.force_update_ref('refs/heads/topic', b) is types.RefUpdateResult.FORCED
    assert data.get_ref('refs/heads/topic').value == b
    assert not os.path.exists(f'{data.GIT_DIR}/refs/heads/topic.lock')


def test_force_update_ref_follows_symbolic_head(make_commit):
    oid = make_commit('first')
    other = data.hash_object(b'other', 'blob')
    data.force_update_ref('HEAD', other)
    assert data.get_ref('HEAD', deref=False).symbolic
    assert data.get_ref('refs/heads/master').value == other
    assert oid != other


def test_force_update_ref_rejected_while_locked(make_commit):
    oid = make_commit('first')
    with open(f'{data.GIT_DIR}/refs/heads/master.lock', 'w'):
        pass
    other = data.hash_object(b'other', 'blob')
    assert data.force_update_ref('refs/heads/master', other) is types.RefUpdateResult.LOCK_FAILURE
    assert data.get_ref('refs/heads/master').value == oid


def test_iter_refs_skips_lock_files(make_commit):
    make_commit('first')
    with open(f'{data.GIT_DIR}/refs/heads/master.lock', 'w'):
        pass
    assert sorted(name for name, _ in data.iter_refs()) == ['HEAD', 'refs/heads/master']


def test_commit_round_trips_identities(make_commit):
    oid = make_commit('a message\n\nwith a body')
    commit_ = base.get_commit(oid)
    assert commit_.message == 'a message\n\nwith a body'
    assert commit_.parents == []
    assert commit_.author == types.Identity('Ada Lovelace', 'ada@example.com', 1_600_000_060, '+0200')
    assert commit_.committer.name == 'Charles Babbage'
    assert commit_.committer.email == 'charles@example.com'


def test_commit_chains_to_head(make_commit):
    first = make_commit('first')
    second = make_commit('second')
    assert base.get_commit(second).parents == [first]
    assert list(base.iter_commits_and_parents({second})) == [second, first]


def test_write_tree_from_map_nests_directories(repo):
    blob = data.hash_object(b'print()\n')
    tree = base.write_tree_from_map({'src/pkg/main.py': blob, 'README': blob})
    assert base.get_tree(tree) == {'README': blob, 'src/pkg/main.py': blob}


def test_get_oid_unknown_name(repo):
    with pytest.raises(ValueError, match='no-such-branch'):
        base.get_oid('no-such-branch')


def test_commit_message_is_read_back_exactly(repo, identity):
    tree = base.write_tree_from_map({})
    for message in ('subject\r\nbody', 'ends with newline\n', '', 'form\x0cfeed sep'):
        oid = base.write_commit(tree, [], message, identity(), identity())
        assert base.get_commit(oid).message == message
