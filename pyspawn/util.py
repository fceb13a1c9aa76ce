r"""shortcuts for the common cases

`spawn` builds a ProcessSpec and launches it in one go, and `run` also
communicates with the result, a bit like subprocess.run():

>>> run('sh -c "exit 3"').status
ExitStatus(EXITED, code=3)
>>> run.o('echo XyZ')
Result(argv=['echo', 'XyZ'], status=ExitStatus(EXITED, code=0), stdout=b'XyZ\n')
>>> run.o('tr a-z A-Z', input=b'abc').stdout
b'ABC'

.o, .e and .oe pipe stdout, stderr or both; .sh goes through the shell:

>>> run.sh.o('echo abc | tr a-z A-Z').stdout
b'ABC\n'
>>> check_output('printf %s abc')
b'abc'
"""

__all__ = 'spawn', 'run', 'check_output'

from functools import partial

from .disposition import PIPE
from .launcher import launch
from .spec import ProcessSpec


def _shell_argv(argv, shell):
    if not shell:
        return argv
    if shell is True:
        shell = ['sh', '-c']
    elif isinstance(shell, str):
        shell = shell.split()
        if len(shell) == 1:
            shell.append('-c')
    return list(shell) + [argv]


def spawn(argv, stdin=None, stdout=None, stderr=None, *, shell=False, input=None, backend='default', **kwargs):
    """launch a process right away; see ProcessSpec for the arguments

    shell:  if exactly True, run ['sh', '-c', argv]; if a str, use it as
            the shell (appending -c if it's a single word)
    input:  bytes or str to feed to stdin, which becomes a PIPE
    """
    spec = ProcessSpec(_shell_argv(argv, shell), stdin, stdout, stderr, **kwargs)
    if input is not None:
        spec.set_input(input)
    return launch(spec, backend)


def run(argv, stdin=None, stdout=None, stderr=None, *, check=False, cancellable=None, **kwargs):
    """spawn() and communicate(); returns a Result"""
    process = spawn(argv, stdin, stdout, stderr, **kwargs)
    return process.communicate(cancellable=cancellable, check=check)


def check_output(argv, **kwargs):
    """run() with stdout piped, returning stdout; ExitAbnormal on failure"""
    return run(argv, stdout=PIPE, check=True, **kwargs).stdout


for func in spawn, run:
    func.sh = partial(func, shell=True)

    for w in func, func.sh:
        w.o = partial(w, stdout=PIPE)
        w.e = partial(w, stderr=PIPE)
        w.oe = partial(w, stdout=PIPE, stderr=PIPE)
