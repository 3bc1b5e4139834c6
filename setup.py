from setuptools import find_packages, setup  # isort: skip


setup(
    name="ddpropagation",
    version="0.1.0",
    description="Datadog trace context propagation over HTTP headers and text maps",
    packages=find_packages(exclude=["tests*"]),
    zip_safe=False,
    python_requires=">=3.8",
    install_requires=[
        "attrs>=20",
        "envier~=0.5",
        "opentracing>=2.0.0",
    ],
    extras_require={
        "testing": [
            "pytest",
            "hypothesis",
            "mock",
        ],
    },
)
