import platform

from setuptools import find_packages, setup

install_requires = [
    "Flask>=3.0.3",
    "numpy>=1.26.4",
    "mss>=9.0.1",
    "Pillow>=10.3.0",
    "pydantic>=2.0.0",
    "pydantic-settings>=2.0.0",
]

# Define OS-specific dependencies
extras_require = {
    "macos": ["pyobjc>=10.3"],
    "linux": [],
    "ocr": ["rapidocr_onnxruntime"],
    "test": [
        "pytest>=8.0.0",
        "pytest-cov>=5.0.0",
        "pytest-xdist>=3.6.0",
        "requests>=2.28.0",
    ],
}

# Determine the current OS
current_os = platform.system().lower()
if current_os == "darwin":
    current_os = "macos"
elif current_os != "linux":
    current_os = None

# Include the OS-specific dependencies if the current OS is recognized
if current_os and current_os in extras_require:
    install_requires.extend(extras_require[current_os])

setup(
    name="ScreenText",
    version="0.1.0",
    description="Local, searchable memory of text seen on screen",
    packages=find_packages(include=["screentext", "screentext.*"]),
    python_requires=">=3.10",
    install_requires=install_requires,
    extras_require=extras_require,
)
