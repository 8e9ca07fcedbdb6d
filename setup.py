# setup.py
from setuptools import setup, find_packages

setup(
    name="buildcoder-project",
    version="0.1.0",
    description="An autonomous build agent CLI, composed of the buildcoder, buildflow and buildfs libraries.",
    author="BuildCoder Team",
    author_email="team@buildcoder.dev",
    # all three top-level packages ship in one distribution
    packages=find_packages(include=['buildcoder', 'buildcoder.*', 'buildflow', 'buildflow.*', 'buildfs', 'buildfs.*']),
    include_package_data=True,
    package_data={
        'buildcoder': ['templates/*.j2'],
        'buildflow': ['prompts/*.j2'],
    },
    install_requires=[
        "click>=8.0",
        "pyyaml",
        "jinja2",
        "rich",
        "httpx>=0.24",
    ],
    extras_require={
        "test": [
            "pytest",
            "anyio",
        ],
    },
    entry_points={
        'console_scripts': [
            'buildcoder = buildcoder.cli:cli',
        ],
    },
    python_requires=">=3.8",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Build Tools",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
