import itertools as it, operator as op, functools as ft
from pathlib import Path
import time

from . import utils as u, types as t, gtfs, store, locator, engine, fares, realtime, ranking, planner
from .planner import Planner, PlannerConf
from .engine import EngineConf
from .fares import FareConf
from .store import DataError
from .realtime import RealtimeFetchError
from .types.public import PlannerError, InputError, PlanOptions, Optimize, Point


def calc_timer(func, *args, log=u.get_logger('tp.timer'), timer_name=None, **kws):
	if not timer_name:
		func_base = func if not isinstance(func, ft.partial) else func.func
		timer_name = '.'.join([func_base.__module__.strip('__'), func_base.__qualname__])
	log.debug('[{}] Starting...', timer_name)
	td = time.monotonic()
	data = func(*args, **kws)
	td = time.monotonic() - td
	log.debug('[{}] Finished in: {:.1f}s', timer_name, td)
	return data


def init_planner(
		gtfs_path, snapshot_dump=None, conf=None,
		conf_engine=None, conf_fares=None, timer_func=None, log=u.get_logger('tp.init') ):
	'''Create Planner with schedule snapshot loaded
			either from GTFS directory or from pickled snapshot file.
		If snapshot_dump path is specified, snapshot loaded from GTFS gets pickled there.'''
	if not conf: conf = PlannerConf()

	read_func, load_func = gtfs.read_records, ft.partial(store.load, timezone=conf.timezone)
	if timer_func:
		read_func, load_func = (ft.partial(timer_func, func) for func in [read_func, load_func])

	gtfs_path = Path(gtfs_path)
	if gtfs_path.is_file():
		snapshot_load = u.pickle_load
		if timer_func: snapshot_load = ft.partial(timer_func, snapshot_load, timer_name='snapshot_load')
		snapshot = snapshot_load(gtfs_path, fail=True)
	else:
		snapshot = load_func(read_func(gtfs_path))
		if snapshot_dump: u.pickle_dump(snapshot, snapshot_dump)
	log.debug( 'Loaded schedule: {}', ', '.join(
		'{}={:,}'.format(k, v) for k, v in sorted(snapshot.stat_counts().items()) ) )

	return Planner( store.Store(snapshot, conf.timezone), conf,
		conf_engine=conf_engine, conf_fares=conf_fares, timer_func=timer_func )
