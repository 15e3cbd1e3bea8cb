import os

from setuptools import find_packages, setup

here = os.path.abspath(os.path.dirname(__file__))
try:
    with open(os.path.join(here, "README.rst")) as f:
        README = f.read()
    with open(os.path.join(here, "CHANGES.txt")) as f:
        CHANGES = f.read()
except IOError:
    README = CHANGES = ""

testing_extras = [
    "pytest >= 3.1.0",  # >= 3.1.0 so we can use pytest.param
    "coverage",
    "pytest-cov",
    "pytest-xdist",
]

setup(
    name="imageblob-harness",
    version="0.1.0",
    description="Upload capture server and browser harness for the imageBlob widget",
    long_description=README + "\n\n" + CHANGES,
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Internet :: WWW/HTTP :: WSGI :: Application",
        "Topic :: Software Development :: Testing",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: Implementation :: CPython",
    ],
    keywords="wsgi upload multipart browser testing",
    packages=find_packages("src", exclude=["tests"]),
    package_dir={"": "src"},
    python_requires=">=3.8",
    install_requires=[
        "WebOb >= 1.8",
        "multipart~=1.1",
        "playwright >= 1.30",
        "pydantic >= 2",
        "pydantic-settings >= 2",
        "python-dotenv",
    ],
    zip_safe=True,
    extras_require={"testing": testing_extras},
    entry_points={
        "console_scripts": ["imageblob = imageblob.__main__:main"],
    },
)
