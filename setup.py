"""
Setup script for guess-duel-client with optional Cython compilation.

This builds the internal engine modules (_core, _channel) as compiled
extensions, while keeping the public API (session.py, types.py,
errors.py, cli.py) as readable Python source.
"""

from setuptools import setup, find_packages, Extension
import os

# Check if Cython is available
try:
    from Cython.Build import cythonize
    USE_CYTHON = True
except ImportError:
    USE_CYTHON = False
    print("Cython not found. Building without compilation (source only).")

# Internal modules to compile with Cython
CYTHON_MODULES = [
    "src/guess_duel/_core/turn_arbiter.py",
    "src/guess_duel/_core/history_ledger.py",
    "src/guess_duel/_core/guess_validator.py",
    "src/guess_duel/_core/dispatcher.py",
    "src/guess_duel/_core/notices.py",
    "src/guess_duel/_core/reconciler.py",
    "src/guess_duel/_channel/connection_manager.py",
    "src/guess_duel/_channel/departure_guard.py",
    "src/guess_duel/_state.py",
]


def get_extensions():
    """Build Extension objects for Cython compilation."""
    if not USE_CYTHON:
        return []

    extensions = []
    for module_path in CYTHON_MODULES:
        if os.path.exists(module_path):
            # src/guess_duel/_core/foo.py -> guess_duel._core.foo
            module_name = module_path.replace("src/", "").replace("/", ".").replace(".py", "")
            extensions.append(Extension(name=module_name, sources=[module_path]))
    return extensions


def get_ext_modules():
    """Get extension modules, cythonized if Cython is available."""
    extensions = get_extensions()
    if not extensions:
        return []

    return cythonize(
        extensions,
        compiler_directives={"language_level": "3"},
        nthreads=os.cpu_count() or 1,
    )


ext_modules = get_ext_modules() if USE_CYTHON else []

setup(
    name="guess-duel-client",
    version="1.0.0",
    description="Client engine for a two-player, turn-based number-guessing game",
    author="Guess Duel Team",
    license="MIT",
    python_requires=">=3.10",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    ext_modules=ext_modules,
    install_requires=[
        "python-dotenv>=1.0.0",
        "pydantic>=2.5.0",
        "httpx>=0.27.0",
        "websockets>=12.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
        ],
        "dev": [
            "cython>=3.0",
            "build",
            "wheel",
        ],
    },
    entry_points={
        "console_scripts": [
            "guess-duel=guess_duel.cli:main",
        ],
    },
    package_data={
        "guess_duel": ["*.so", "*.pyd", "_core/*.so", "_core/*.pyd", "_channel/*.so", "_channel/*.pyd"],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Cython",
    ],
)
