"""Install URL authentication callouts package."""

from setuptools import setup, find_packages

setup(
    name='urlauth',
    version='0.1.0',
    packages=find_packages(include=['urlauth', 'urlauth.*'],
                           exclude=['*test*']),
    install_requires=[
        "requests",
        "urllib3>=2",
        "pytz",
        "python-json-logger",
    ],
    extras_require={
        "test": [
            "pytest",
            "hypothesis",
        ],
    },
    zip_safe=False
)
