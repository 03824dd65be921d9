[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mnistopt"
version = "0.1.0"
description = "A fully connected network trained on MNIST digits with SGD, momentum, learning-rate decay, Adam and RMSProp"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = ["mnist", "neural-network", "sgd", "momentum", "adam", "rmsprop", "optimisation"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Education",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Scientific/Engineering :: Artificial Intelligence",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
mnistopt = "mnistopt.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["mnistopt"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
