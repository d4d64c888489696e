"""Setup script for typecalc."""
from setuptools import setup, find_packages  # type: ignore
import re

# Read the version without importing the package.
with open('typecalc/__init__.py') as f:
    version = re.search(r"^version = '([^']+)'", f.read(), re.M).group(1)

setup(
    name='typecalc',
    version=version,
    description='A structural type-expression evaluator in the style of TypeScript\'s type system',  # noqa
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    license='MIT',
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'Topic :: Software Development :: Compilers',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3.12',
    ],
    keywords='types typescript conditional-types evaluator',
    packages=find_packages(include=['typecalc', 'typecalc.*']),  # type: ignore
    python_requires='>=3.12',
    install_requires=[
        'typing-extensions>=4',
    ],
    extras_require={
        'test': [
            'coverage>=7',
            'hypothesis>=6',
        ],
        'dev': ['mypy>=1.1.1'],
    },
)
