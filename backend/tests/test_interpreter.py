"""Unit tests validating the in-process interpreter behaviour and errors."""

from backend.zpm.interpreter import Interpreter, IntValue, TextValue, TypeMismatch


def _run(*lines):
    it = Interpreter(output_sink=None)
    for line in lines:
        if not it.execute(line):
            return it, False
    return it, True


def test_set_and_print():
    it, ok = _run('x = 42 ;', 'PRINT x')
    assert ok
    assert it.output == ['x=42']

    it, ok = _run('n = -7 ;', 'PRINT n')
    assert it.output == ['n=-7']


def test_add_integers():
    it, ok = _run('x = 5 ;', 'x += 3 ;', 'PRINT x')
    assert ok
    assert it.output == ['x=8']


def test_concatenate_text():
    it, ok = _run('s = "ab" ;', 's += "cd" ;', 'PRINT s')
    assert ok
    assert it.output == ['s=abcd']


def test_type_mismatch_halts_run():
    it = Interpreter(output_sink=None)
    res = it.run('x = 5 ;\nx -= "a" ;\nPRINT x\n')
    assert res['errors'] is not None
    assert res['errors']['code'] == 'RUNTIME_ERROR'
    assert res['errors']['line'] == 2
    assert isinstance(it.last_error, TypeMismatch)
    # nothing after the failing line ran
    assert res['output'] == ''


def test_loop_reruns_body_each_pass():
    it, ok = _run('FOR 3 x = 0 ; x += 1 ; PRINT x ; ENDFOR')
    assert ok
    assert it.output == ['x=1', 'x=1', 'x=1']


def test_zero_iterations_never_evaluates_body():
    it, ok = _run('FOR 0 PRINT undefined ; ENDFOR')
    assert ok
    assert it.output == []


def test_quoted_semicolon_in_loop_body():
    it, ok = _run('FOR 1 s = "a;b" ; PRINT s ; ENDFOR')
    assert ok
    assert it.output == ['s=a;b']


def test_too_few_tokens_fail():
    it = Interpreter(output_sink=None)
    for line in ('PRINT', 'x', '', '   ', 'FOR'):
        assert it.execute(line) is False


def test_set_changes_type_then_add_fails():
    it, ok = _run('x = 5 ;', 'x = "hi" ;')
    assert ok
    assert it.env['x'] == TextValue('hi')
    assert it.execute('x += 1 ;') is False
    assert isinstance(it.last_error, TypeMismatch)
    assert it.env['x'] == TextValue('hi')


def test_default_sink_prints_to_stdout(capsys):
    it = Interpreter()
    assert it.execute('x = 5 ;')
    assert it.execute('PRINT x')
    assert capsys.readouterr().out == 'x=5\n'


def test_injected_environment_is_used():
    env = {'seed': IntValue(10)}
    it = Interpreter(env, output_sink=None)
    assert it.execute('x = seed ;')
    assert it.execute('x *= 2 ;')
    assert env['x'] == IntValue(20)
