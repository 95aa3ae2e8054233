import itertools as it, operator as op, functools as ft
from collections import OrderedDict
import os, math, logging, datetime, base64
import contextlib, tempfile, stat

import attr


class LogMessage:
	def __init__(self, fmt, a, k): self.fmt, self.a, self.k = fmt, a, k
	def __str__(self): return self.fmt.format(*self.a, **self.k) if self.a or self.k else self.fmt

class LogStyleAdapter(logging.LoggerAdapter):
	def __init__(self, logger, extra=None):
		super(LogStyleAdapter, self).__init__(logger, extra or {})
	def log(self, level, msg, *args, **kws):
		if not self.isEnabledFor(level): return
		log_kws = {} if 'exc_info' not in kws else dict(exc_info=kws.pop('exc_info'))
		msg, kws = self.process(msg, kws)
		self.logger._log(level, LogMessage(msg, args, kws), (), log_kws)

get_logger = lambda name: LogStyleAdapter(logging.getLogger(name))


def b64(data):
	return base64.urlsafe_b64encode(data).rstrip(b'=').decode()

def get_uid_token(chars=4):
	assert chars * 6 % 8 == 0, chars
	return b64(os.urandom(chars * 6 // 8))

def log_lines(log_func, lines, log_func_last=False):
	if isinstance(lines, str): lines = list(line.rstrip() for line in lines.rstrip().split('\n'))
	uid = get_uid_token()
	for n, line in enumerate(lines, 1):
		if isinstance(line, str): line = '[{}] {}', uid, line
		else: line = ['[{}] {}'.format(uid, line[0])] + list(line[1:])
		if log_func_last and n == len(lines): log_func_last(*line)
		else: log_func(*line)


def attr_struct(cls=None, vals_to_attrs=False, **kws):
	'''attr.s() with slots by default.
		vals_to_attrs=True turns all plain class values into attr.ib() defaults, for conf objects.'''
	if not cls: return ft.partial(attr_struct, vals_to_attrs=vals_to_attrs, **kws)
	if vals_to_attrs:
		for k, v in list(vars(cls).items()):
			if k.startswith('_') or callable(v): continue
			if isinstance(v, (property, classmethod, staticmethod)): continue
			setattr(cls, k, attr.ib(v))
	kws.setdefault('slots', True)
	return attr.s(cls, **kws)

def attr_init(factory_or_default=attr.NOTHING, **attr_kws):
	if callable(factory_or_default): factory_or_default = attr.Factory(factory_or_default)
	return attr.ib(default=factory_or_default, **attr_kws)

def struct_from_val(val, cls):
	'Build attrs struct from tuple/list (positional) or mapping (keywords) value.'
	if isinstance(val, cls): pass
	elif isinstance(val, (tuple, list)): val = cls(*val)
	elif isinstance(val, (dict, OrderedDict)):
		fields = set(f.name for f in attr.fields(cls))
		unknown = set(val).difference(fields)
		if unknown: raise ValueError('Unknown {} fields: {}'.format(cls.__name__, ', '.join(sorted(unknown))))
		val = cls(**val)
	else: raise ValueError(val)
	return val

def conf_update(conf, values):
	'Override values of vals_to_attrs conf object from a mapping, rejecting unknown keys.'
	for k, v in (values or dict()).items():
		if not hasattr(conf, k):
			raise KeyError('Unrecognized {} option: {!r} (value: {!r})'.format(conf.__class__.__name__, k, v))
		setattr(conf, k, v)
	return conf


def get_any(d, *keys, default=None):
	for k in keys:
		try: return d[k]
		except KeyError: pass
	return default


@contextlib.contextmanager
def safe_replacement(path, *open_args, mode=None, **open_kws):
	path = str(path)
	if mode is None:
		try: mode = stat.S_IMODE(os.lstat(path).st_mode)
		except OSError: pass
	open_kws.update( delete=False,
		dir=os.path.dirname(path) or '.', prefix=os.path.basename(path)+'.' )
	if not open_args: open_kws['mode'] = 'w'
	with tempfile.NamedTemporaryFile(*open_args, **open_kws) as tmp:
		try:
			if mode is not None: os.fchmod(tmp.fileno(), mode)
			yield tmp
			if not tmp.closed: tmp.flush()
			os.rename(tmp.name, path)
		finally:
			try: os.unlink(tmp.name)
			except OSError: pass


pickle_log = get_logger('tp.pickle')

def pickle_dump(state, name):
	import pickle
	with safe_replacement(name, 'wb') as dst:
		pickle_log.debug('Pickling data (type={}) to: {}', state.__class__.__name__, name)
		pickle.dump(state, dst)

def pickle_load(name, fail=False):
	import pickle
	try:
		with open(str(name), 'rb') as src:
			pickle_log.debug('Unpickling data from: {}', name)
			return pickle.load(src)
	except Exception as err:
		if fail: raise
		pickle_log.debug('Failed to unpickle data from {}: {}', name, err)


def dts_parse(dts_str):
	'Parse "HH:MM[:SS]" (hours can be >= 24) or plain number into seconds.'
	if isinstance(dts_str, (int, float)): return dts_str
	dts_str = dts_str.strip()
	if ':' not in dts_str: return float(dts_str)
	dts_vals = dts_str.split(':')
	if len(dts_vals) == 2: dts_vals.append('00')
	if len(dts_vals) != 3: raise ValueError(dts_str)
	return sum(int(n)*k for k, n in zip([3600, 60, 1], dts_vals))

def dts_format(dts):
	dts_days, dts = divmod(int(dts), 24 * 3600)
	dts = str(datetime.time(dts // 3600, (dts % 3600) // 60, dts % 60))
	if dts_days: dts = '{}+{}'.format(dts_days, dts)
	return dts


earth_radius = 6371000 # meters

def haversine(lat1, lon1, lat2, lon2, math=math):
	'Great-circle distance in meters between two lat/lon points.'
	lat1, lon1, lat2, lon2 = (math.radians(float(v)) for v in [lat1, lon1, lat2, lon2])
	a = ( math.sin((lat2 - lat1)/2)**2 +
		math.cos(lat1) * math.cos(lat2) * math.sin((lon2 - lon1)/2)**2 )
	return earth_radius * 2 * math.asin(math.sqrt(a if a < 1 else 1.0))

def walking_time(distance, speed):
	'Walking time in whole seconds, rounded up.'
	return int(math.ceil(distance / speed))
