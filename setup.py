from setuptools import setup, find_packages

setup(
    name="credtest",
    version="0.1",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        'pyyaml',
        'numpy',
        'scipy',
        'python-dotenv'
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'credtest=credtest.main:main',
        ],
    },
    python_requires=">=3.8",
)
