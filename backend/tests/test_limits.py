"""Tests for interpreter runtime limits (steps, output caps)."""

from backend.zpm.interpreter import Interpreter, OutputLimitExceeded, StepLimitExceeded


def test_step_limit():
    it = Interpreter(output_sink=None, max_steps=5)
    res = it.run('FOR 10 x = 1 ; ENDFOR')
    assert res['errors'] and res['errors']['code'] == 'STEP_LIMIT'
    assert res['errors']['line'] == 1
    assert isinstance(it.last_error, StepLimitExceeded)


def test_steps_count_loop_body_statements():
    it = Interpreter(output_sink=None)
    res = it.run('x = 1 ;\nFOR 2 x += 1 ; ENDFOR\n')
    assert res['errors'] is None
    # one assignment, the FOR line itself, two body executions
    assert res['steps'] == 4


def test_output_limit():
    it = Interpreter(output_sink=None, max_output_chars=10)
    res = it.run('x = "abcdefghij" ;\nPRINT x')
    assert res['errors'] and res['errors']['code'] == 'OUTPUT_LIMIT'
    assert isinstance(it.last_error, OutputLimitExceeded)
    assert res['output'] == ''


def test_unbounded_by_default():
    it = Interpreter(output_sink=None)
    assert it.execute('x = 0 ;')
    assert it.execute('FOR 20000 x += 1 ; ENDFOR')
    assert str(it.env['x']) == '20000'
