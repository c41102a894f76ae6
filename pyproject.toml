[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "cydgroove"
version = "0.1.0"
description = "Generative Euclidean drum machine and bass groove synthesizer engine"
requires-python = ">=3.10"
dependencies = []
keywords = ["synthesizer", "drum machine", "euclidean rhythm", "midi", "groovebox", "dsp"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia :: Sound/Audio :: Sound Synthesis",
    "Topic :: Multimedia :: Sound/Audio :: MIDI",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
cydgroove = "cydgroove.audio_task:main"

[tool.hatch.build.targets.wheel]
packages = ["cydgroove"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
