import pytest

from appmigrate.controlplane.models import App
from appmigrate.errors import NotFoundError, PollTimeoutError, TransportError
from appmigrate.migration.poller import MIN_POLL_INTERVAL, StatusPoller


def test_returns_running_after_third_poll(fake, poller, clock):
    fake.add_app(App(name='app1', status='running'))
    fake.script_statuses('app1', 'creating', 'creating')

    assert poller.await_ready('app1') == 'running'
    assert fake.call_names() == ['app_get', 'app_get', 'app_get']
    assert clock.sleeps == [1.0, 1.0]


def test_terminal_status_returns_without_sleeping(fake, poller, clock):
    fake.add_app(App(name='app1', status='running'))

    assert poller.await_ready('app1') == 'running'
    assert clock.sleeps == []


def test_any_non_transitional_status_is_terminal(fake, poller):
    fake.add_app(App(name='app1', status='running'))
    fake.script_statuses('app1', 'updating', 'rollback')

    assert poller.await_ready('app1') == 'rollback'


def test_timeout_raises_poll_timeout_error(fake, clock):
    fake.add_app(App(name='app1', status='running'))
    fake.script_statuses('app1', *(['updating'] * 100))
    poller = StatusPoller(fake, interval=1, timeout=5, clock=clock)

    with pytest.raises(PollTimeoutError) as exc:
        poller.await_ready('app1')

    assert exc.value.last_status == 'updating'
    assert exc.value.app == 'app1'
    assert not isinstance(exc.value, TransportError)
    assert sum(clock.sleeps) <= 5


def test_per_call_timeout_overrides_default(fake, poller, clock):
    fake.add_app(App(name='app1', status='running'))
    fake.script_statuses('app1', *(['creating'] * 100))

    with pytest.raises(PollTimeoutError) as exc:
        poller.await_ready('app1', timeout=2)

    assert exc.value.timeout == 2
    assert sum(clock.sleeps) <= 2


def test_absent_after_deleting_is_terminal(fake, poller):
    fake.add_app(App(name='app1', status='running'))
    fake.app_delete('app1')
    fake.script_statuses('app1', 'deleting', 'deleting')

    assert poller.await_ready('app1') == 'deleted'
    assert fake.call_names().count('app_get') == 3


def test_absent_after_delete_request_is_terminal(fake, poller):
    assert poller.await_ready('app1', deleting=True) == 'deleted'


def test_absent_app_without_deleting_raises_not_found(fake, poller):
    with pytest.raises(NotFoundError):
        poller.await_ready('app1')


def test_remote_errors_propagate_unchanged(fake, poller):
    error = TransportError('err1')
    fake.failures['app_get'] = error

    with pytest.raises(TransportError) as exc:
        poller.await_ready('app1')
    assert exc.value is error


def test_interval_is_clamped_to_minimum(fake, clock):
    fake.add_app(App(name='app1', status='running'))
    fake.script_statuses('app1', 'creating')
    poller = StatusPoller(fake, interval=0, clock=clock)

    assert poller.interval == MIN_POLL_INTERVAL
    poller.await_ready('app1')
    assert clock.sleeps == [MIN_POLL_INTERVAL]


def test_from_config_reads_polling_section(fake, clock):
    poller = StatusPoller.from_config(fake, {'polling': {'interval': 5, 'timeout': 60}}, clock=clock)

    assert poller.interval == 5
    assert poller.timeout == 60
    assert poller.clock is clock


def test_last_sleep_is_shortened_to_hit_the_deadline(fake, clock):
    fake.add_app(App(name='app1', status='running'))
    fake.script_statuses('app1', 'creating', 'creating', 'creating')
    poller = StatusPoller(fake, interval=2, timeout=5, clock=clock)

    assert poller.await_ready('app1') == 'running'
    assert clock.sleeps == [2.0, 2.0, 1.0]
    assert fake.call_names().count('app_get') == 4


def test_status_is_polled_at_the_deadline_before_timing_out(fake, clock):
    fake.add_app(App(name='app1', status='running'))
    fake.script_statuses('app1', *(['updating'] * 100))
    poller = StatusPoller(fake, interval=2, timeout=5, clock=clock)

    with pytest.raises(PollTimeoutError):
        poller.await_ready('app1')

    assert clock.sleeps == [2.0, 2.0, 1.0]
    assert fake.call_names().count('app_get') == 4
