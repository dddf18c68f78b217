# This file is part of the rkMOR project.
# Copyright rkMOR developers and contributors. All rights reserved.
# License: BSD 2-Clause License (https://opensource.org/licenses/BSD-2-Clause)

import logging

import rkmor.core as core
from rkmor.core.logger import log_levels
from rkmor.reductors.interpolation import RKReductor


def test_logger():
    logger = RKReductor._logger
    for lvl in [getattr(logging, lvl) for lvl in ['WARN', 'ERROR', 'DEBUG', 'INFO']]:
        logger.setLevel(lvl)
        assert logger.isEnabledFor(lvl)
    for verb in ['warning', 'error', 'debug', 'info']:
        getattr(logger, verb)(f'{verb} -- logger {str(logger)}')


def test_empty_log_message():
    core.logger.getLogger('test').warning('')


def test_block(capsys):
    logger = core.logger.getLogger('rkmortests.block', level='INFO')
    with logger.block('Computing ...'):
        logger.info('inside')
    err = capsys.readouterr().err
    assert 'Computing ...' in err
    assert 'inside' in err


def test_log_levels():
    logger = RKReductor._logger
    before_name = 'INFO'
    logger.setLevel(before_name)
    before = logger.level
    with log_levels({logger.name: 'DEBUG'}):
        assert 'DEBUG' == logging.getLevelName(logger.level)
        assert logger.level != before
    assert logger.level == before
    assert before_name == logging.getLevelName(logger.level)


def test_warning_once(capsys):
    logger = RKReductor._logger
    logger.setLevel('DEBUG')
    func = logger.warning_once
    msg = f'warning -- logger {str(logger)}'
    func(msg)
    # this just clears the capture buffer
    capsys.readouterr()
    func(msg)
    second = capsys.readouterr()
    # same log call must result in no output
    assert second.out == second.err == ''


def test_disable_logging(diag_fom):
    rk = RKReductor(diag_fom)
    rk.disable_logging()
    assert rk.logging_disabled
    rk.reduce([1, 2])
    rk.enable_logging()
    assert not rk.logging_disabled
