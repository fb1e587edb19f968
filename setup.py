from setuptools import find_packages, setup

setup(
    name="gpengine",
    version="0.1.0",
    description="Gaussian process log marginal likelihood and gradient engine",
    packages=find_packages(),
    install_requires=[
        "numpy",
        "scipy>=1.0",
    ],
    extras_require={
        "test": [
            "pytest",
            "numdifftools",
        ],
    },
)
