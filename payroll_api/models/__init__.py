# payroll_api/models/__init__.py
import importlib
import pkgutil

_SKIP = ("__pycache__", "tests")


def load_all():
    """
    Import every model module under ``payroll_api.models`` (payroll/ included)
    so ``db.metadata`` knows all tables before create_all / autogenerate.
    Returns the imported module names.
    """
    loaded = []
    for info in pkgutil.walk_packages(__path__, prefix=f"{__name__}."):
        if info.name.rsplit(".", 1)[-1] in _SKIP:
            continue
        importlib.import_module(info.name)
        loaded.append(info.name)
    return loaded
