from setuptools import find_packages, setup

setup(
    name='jobpoller',
    version='1.0.0',
    description='Polling job scheduler with recurring jobs and message delivery',
    packages=find_packages(include=['jobpoller', 'jobpoller.*'], exclude=[
        'jobpoller.test',
        'jobpoller.test.*',
    ]),
    python_requires='>=3.8',
    install_requires=[
        'croniter>=2.0',
        'python-dateutil',
        'requests',
        'simplejson',
    ],
    extras_require={
        'test': [
            'hypothesis',
            'pytest',
        ],
    },
    entry_points={
        "console_scripts": [
            "jobpoller = jobpoller.main:main",
        ],
    }
)
