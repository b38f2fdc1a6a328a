import os

import nox


nox.options.sessions = ['test', 'lint', 'type_check']
nox.options.python = False


def build(session):
    install(session, '-e', '.')


@nox.session(python=False)
def test(session):
    build(session)
    install(session, '-r', 'requirements/dev.txt')
    session.run('pytest', '-vss', 'tests/', *session.posargs)


@nox.session(python=False)
def lint(session):
    install(session, '-r', 'requirements/lint.txt')

    session.cd('python/serdyn')
    paths = ['.', '../../tests']
    session.run('black', *(['--check', '--diff', *paths] if _is_ci() else paths))
    session.run('ruff', 'check', '.', *([] if _is_ci() else ['--fix']))


@nox.session(python=False)
def type_check(session):
    build(session)
    install(session, '-r', 'requirements/type_check.txt')

    session.cd('python/serdyn')
    session.run('pyright', success_codes=[0, 1] if _is_ci() else [0])
    session.run('mypy', '.', '--strict', '--implicit-reexport', '--pretty')


def install(session, *args):
    if session._runner.global_config.no_install:
        return
    session.run_always('pip', 'install', *args)


def _is_ci() -> bool:
    return bool(os.environ.get('CI', None))
