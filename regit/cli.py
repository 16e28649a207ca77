import argparse
import datetime
import logging
import os
import sys
import textwrap

from . import data
from . import base
from . import rewrite
from . import types
from .errors import RegitError


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(levelname)s %(name)s: %(message)s',
    )
    with data.change_git_dir('.'):
        try:
            args.func(args)
        except RegitError as e:
            print(f'error: {e}', file=sys.stderr)
            if e.orphans:
                print(f'{len(e.orphans)} new commits left unreferenced', file=sys.stderr)
            sys.exit(1)


def parse_instant(value):
    try:
        return datetime.datetime.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f'not an ISO-8601 instant: {value!r}')


def parse_args(argv=None):
    parser = argparse.ArgumentParser()
    parser.add_argument('-v', '--verbose', action='store_true')
    commands = parser.add_subparsers(dest='command')
    commands.required = True

    init_parser = commands.add_parser('init')
    init_parser.set_defaults(func=init)

    cat_file_parser = commands.add_parser('cat-file')
    cat_file_parser.set_defaults(func=cat_file)
    cat_file_parser.add_argument('object')

    add_parser = commands.add_parser('add')
    add_parser.set_defaults(func=add)
    add_parser.add_argument('files', nargs='+')

    commit_parser = commands.add_parser('commit')
    commit_parser.set_defaults(func=commit)
    commit_parser.add_argument('-m', '--message', required=True)

    log_parser = commands.add_parser('log')
    log_parser.set_defaults(func=log)
    log_parser.add_argument('oid', default='@', nargs='?')

    branch_parser = commands.add_parser('branch')
    branch_parser.set_defaults(func=branch)
    branch_parser.add_argument('name', nargs='?')
    branch_parser.add_argument('start_point', default='@', nargs='?')

    rewrite_parser = commands.add_parser('rewrite')
    rewrite_parser.set_defaults(func=rewrite_)
    rewrite_parser.add_argument('--start', required=True, type=parse_instant)
    rewrite_parser.add_argument('--end', required=True, type=parse_instant)
    rewrite_parser.add_argument('--split', action='store_true',
                                help='write one detached commit per file instead of rewriting the branch')
    rewrite_parser.add_argument('--base', help='keep commits reachable from this revision unchanged')

    return parser.parse_args(argv)


def init(args):
    base.init()
    print(f'Initialized empty regit repository in {os.getcwd()}/{data.GIT_DIR}')


def cat_file(args):
    sys.stdout.flush()
    sys.stdout.buffer.write(data.get_object(base.get_oid(args.object), expected=None))


def add(args):
    base.add(args.files)


def commit(args):
    print(base.commit(args.message))


def log(args):
    oid = base.get_oid(args.oid)
    for oid in base.iter_commits_and_parents({oid}):
        commit_ = base.get_commit(oid)
        when = datetime.datetime.fromtimestamp(commit_.author.timestamp, datetime.timezone.utc)
        print(f'commit {oid}')
        print(f'Author: {commit_.author.name} <{commit_.author.email}>')
        print(f'Date:   {when.isoformat()}\n')
        print(textwrap.indent(commit_.message, '    '))
        print('')


def branch(args):
    if not args.name:
        current = base.get_branch_name()
        for name in sorted(base.iter_branch_names()):
            prefix = '*' if name == current else ' '
            print(f'{prefix} {name}')
    else:
        base.create_branch(args.name, base.get_oid(args.start_point))
        print(f'Branch {args.name} created at {args.start_point}')


def rewrite_(args):
    mode = types.RewriteMode.SPLIT if args.split else types.RewriteMode.SINGLE
    request = rewrite.RewriteRequest(
        repo_path='.',
        start=args.start,
        end=args.end,
        mode=mode,
        base=args.base,
    )
    result = rewrite.rewrite_history(request, logger=logging.getLogger('regit.rewrite'))
    if result.tip:
        print(f'{result.ref} -> {result.tip} ({len(result.created)} commits rewritten)')
    else:
        for oid in result.created:
            print(oid)
